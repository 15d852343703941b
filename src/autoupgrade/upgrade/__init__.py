"""Plan and apply table upgrades."""

from autoupgrade.upgrade.executor import UpgradeExecutor
from autoupgrade.upgrade.planner import UpgradeInfo, UpgradeOptions, UpgradePlanner
from autoupgrade.upgrade.upgrader import AutoUpgrader

__all__ = [
    "AutoUpgrader",
    "UpgradeExecutor",
    "UpgradeInfo",
    "UpgradeOptions",
    "UpgradePlanner",
]
