import json
import logging
import os
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional

from adtclient.lib import error
from adtclient.lib import uri as urilib

"""
Connection configuration.  It may come from environment variables
(``SAP_HOST``, ``SAP_USER`` ...) or from a JSON/YAML configuration file
whose sections hold the same keys in lower case (``sap_host``,
``sap_user`` ...).  Everything is validated when the client is set up;
a missing or broken value is a startup error, never a runtime one.
"""

REQUIRED = ("SAP_HOST", "SAP_CLIENT", "SAP_USER", "SAP_PASSWORD")

TRUE_VALUES = ("1", "true", "yes", "on", "x")
FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass
class ConnectionConfig:
    """
    Everything needed to reach one backend.

    Attributes:
        host: Backend host name
        client: SAP client (mandant)
        username: Logon user
        password: Logon password
        port: Port, None for the scheme default
        https: Use TLS
        language: Logon language
        allow_insecure: Skip TLS certificate verification (lab systems)
        timeout: Request timeout in seconds
        max_retries: Retries for idempotent requests failing on connection level
    """

    host: str
    client: str
    username: str
    password: str
    port: Optional[int] = 443
    https: bool = True
    language: Optional[str] = "EN"
    allow_insecure: bool = False
    timeout: float = 30.0
    max_retries: int = 3

    @property
    def base_url(self) -> str:
        return urilib.base_url(self.host, self.port, self.https)

    def client_params(self) -> Dict[str, Any]:
        """Keyword arguments for ADTClient"""
        return {
            "url": self.base_url,
            "username": self.username,
            "password": self.password,
            "client": self.client,
            "language": self.language,
            "timeout": self.timeout,
            "ssl_verify_cert": not self.allow_insecure,
            "max_retries": self.max_retries,
        }


def parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise error.ConfigurationError(reason=f"{key} must be a boolean, got {value!r}")


def parse_number(key: str, value: Any, kind: type = int, minimum: float = 0):
    try:
        ret = kind(value)
    except (TypeError, ValueError):
        raise error.ConfigurationError(
            reason=f"{key} must be a number, got {value!r}"
        ) from None
    if ret < minimum:
        raise error.ConfigurationError(reason=f"{key} must be at least {minimum}, got {ret}")
    return ret


def from_environment(environ: Optional[Mapping[str, str]] = None) -> ConnectionConfig:
    """
    Build the connection configuration from ``SAP_*`` variables.

    Raises:
        ConfigurationError: naming every missing required variable, or the
            first value that does not parse
    """
    if environ is None:
        environ = os.environ
    missing = [key for key in REQUIRED if not environ.get(key)]
    if missing:
        raise error.ConfigurationError(
            reason="missing required configuration: %s" % ", ".join(missing)
        )

    port = environ.get("SAP_PORT")
    config = ConnectionConfig(
        host=environ["SAP_HOST"],
        client=str(environ["SAP_CLIENT"]),
        username=environ["SAP_USER"],
        password=environ["SAP_PASSWORD"],
        port=parse_number("SAP_PORT", port, minimum=1) if port else 443,
        https=parse_bool("SAP_SSL", environ.get("SAP_SSL", True)),
        language=environ.get("SAP_LANGUAGE") or "EN",
        allow_insecure=parse_bool("SAP_ALLOW_INSECURE", environ.get("SAP_ALLOW_INSECURE", False)),
        timeout=parse_number("SAP_TIMEOUT", environ.get("SAP_TIMEOUT", 30.0), float, 0.001),
        max_retries=parse_number("SAP_MAX_RETRIES", environ.get("SAP_MAX_RETRIES", 3)),
    )
    if config.allow_insecure:
        logging.getLogger("adtclient").warning(
            "TLS certificate verification is disabled for %s" % config.host
        )
    return config


def from_config_section(section: Mapping[str, Any]) -> ConnectionConfig:
    """A config file section uses the environment keys in lower case"""
    return from_environment(
        {
            k.upper(): v
            for k, v in section.items()
            if k.lower().startswith("sap_") and v is not None
        }
    )


def config_section(config, section="default"):
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn, interactive_error=False):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/adtclient/adt.conf",
            f"{cfgdir}/adtclient/adt.yaml",
            f"{cfgdir}/adtclient/adt.json",
            "/etc/adtclient/adt.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## Late import, wrapped in try/except.  yaml is external module,
            ## and not included in the requirements as for now.
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    logging.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                logging.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )

    except FileNotFoundError:
        logging.info("no config file found")
    except ValueError:
        if interactive_error:
            logging.error(
                "error in config file.  Be aware that the interactive configuration will ignore and overwrite the current broken config file",
                exc_info=True,
            )
        else:
            logging.error("error in config file.  It will be ignored", exc_info=True)
    return {}
