# python
import logging
import sys

from proxyconf import CapabilityRegistry, ConfigLoader, ConversionError

if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    path = sys.argv[1] if len(sys.argv) > 1 else "proxy.yaml"
    loader = ConfigLoader(path, CapabilityRegistry.from_env("acl-rule,route,http,rustls"))
    loader.register_reload_hook(lambda cfg, _prev: print("Servers:", ", ".join(cfg.server_names())))

    try:
        config = loader.load()
    except ConversionError as e:
        print(f"{e.code}: {e}")
        sys.exit(1)

    for server in config.servers:
        print(server.name, "->", server.listen, "idle timeout", server.idle_timeout)
    print("Fingerprint:", loader.fingerprint)
