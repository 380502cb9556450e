"""
sqlew schema migration units.

Each module named ``m<14-digit version>_<name>.py`` defines ``up(adapter)`` and
``down(adapter)``. Bodies go through SafeDDL so they can be re-run against
partially migrated or hand-patched schemas.
"""

import importlib
import logging
import pkgutil
import re
from typing import List

from core.migration import Migration

logger = logging.getLogger(__name__)

MODULE_PATTERN = re.compile(r'^m(\d{14})_(\w+)$')


def load_migrations() -> List[Migration]:
    """Discover the migration units in this package, sorted by version"""
    units = []
    for module_info in pkgutil.iter_modules(__path__):
        match = MODULE_PATTERN.match(module_info.name)
        if not match:
            continue
        module = importlib.import_module(f"{__name__}.{module_info.name}")
        units.append(Migration(
            version=int(match.group(1)),
            name=match.group(2),
            up=module.up,
            down=module.down,
        ))
    units.sort(key=lambda unit: unit.version)
    logger.debug(f"Discovered {len(units)} migration unit(s)")
    return units
