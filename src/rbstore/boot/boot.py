import zirconium as zr
import pathlib
import os
import logging
import zrlog

from rbstore import __VERSION__


def _config_paths():
    yield pathlib.Path(".").absolute()
    yield pathlib.Path("~").expanduser().absolute()
    custom_config_path = os.environ.get("RBSTORE_CONFIG_SEARCH_PATHS", "./config")
    if custom_config_path:
        paths = custom_config_path.split(";")
        for path in paths:
            if path:
                p = pathlib.Path(path).absolute()
                if p.exists():
                    yield p


def init_rbstore(app_type: str):
    # The Google libraries are very chatty in DEBUG mode
    logging.getLogger("google.auth").setLevel(logging.INFO)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.INFO)

    @zr.configure
    def set_config(app_config: zr.ApplicationConfig):
        config_paths = [x for x in _config_paths()]
        logging.getLogger("rbstore.boot").info(f"Config Search Paths: {';'.join(str(x) for x in config_paths)}")
        for path in config_paths:
            app_config.register_default_file(path / ".rbstore.defaults.toml")
            app_config.register_default_file(path / f".rbstore.{app_type}.defaults.toml")
            app_config.register_file(path / ".rbstore.toml")
            app_config.register_file(path / f".rbstore.{app_type}.toml")
    zrlog.set_default_extra("app_type", app_type)
    zrlog.set_default_extra("version", __VERSION__)
    zrlog.init_logging()
