import logging

from proxyconf import build_proxy_config, convert, load_document

if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    doc = load_document("servers:\n  - name: socks\n    listen: 1080\n")
    config = convert(doc, build_proxy_config)
    print("Listen:", config.server("socks").listen)
