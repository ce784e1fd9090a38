"""
Controller dialects, looked up by ControllerProfile.dialect.
"""
from typing import Dict, Type
from swarf.config.machine_config import ControllerProfile
from swarf.dialects.base_dialect import BaseDialect
from swarf.dialects.fanuc_dialect import FanucDialect
from swarf.dialects.haas_dialect import HaasDialect
from swarf.dialects.linuxcnc_dialect import LinuxCNCDialect
from swarf.dialects.mach3_dialect import Mach3Dialect
from swarf.utils.errors import ConfigError

DIALECTS: Dict[str, Type[BaseDialect]] = {
    "fanuc": FanucDialect,
    "mach3": Mach3Dialect,
    "linuxcnc": LinuxCNCDialect,
    "haas": HaasDialect,
}


def get_dialect(profile: ControllerProfile) -> BaseDialect:
    """Instantiate the dialect a profile asks for."""
    try:
        dialect_class = DIALECTS[profile.dialect]
    except KeyError:
        raise ConfigError(f"No dialect named '{profile.dialect}'",
                          {"available": ", ".join(sorted(DIALECTS))}) from None
    return dialect_class(profile)
