"""
Navigation policy registry and factory.

Provides create_policy() to instantiate navigation policies by name.
"""

import importlib
import logging
from typing import Optional

from telloseek.navigation.base_policy import DecisionRule, NavigationDecision, NavigationPolicy

logger = logging.getLogger(__name__)

# Registry: policy_name -> (module_path, class_name)
AVAILABLE_POLICIES = {
    'pid': ('telloseek.navigation.pid_policy', 'PIDNavigationPolicy'),
    'external': ('telloseek.navigation.external_command_policy', 'ExternalCommandPolicy'),
}


def create_policy(policy_name: str = 'pid', config: Optional[dict] = None,
                  buffer_size: int = 8) -> NavigationPolicy:
    """
    Factory: create a navigation policy by name.

    Args:
        policy_name: Policy identifier ('pid' or 'external')
        config: PIDNavigation configuration dict (used by the 'pid' policy)
        buffer_size: Command buffer size (used by the 'external' policy)

    Returns:
        NavigationPolicy instance

    Raises:
        ValueError: If policy_name is not registered
    """
    key = (policy_name or '').strip().lower()
    if key not in AVAILABLE_POLICIES:
        available = ", ".join(sorted(AVAILABLE_POLICIES.keys()))
        raise ValueError(
            f"Unknown navigation policy: '{policy_name}'. "
            f"Available policies: {available}"
        )

    module_path, class_name = AVAILABLE_POLICIES[key]
    module = importlib.import_module(module_path)
    policy_class = getattr(module, class_name)

    if key == 'pid':
        from telloseek.navigation.pid_policy import PIDNavigationConfig
        policy = policy_class(PIDNavigationConfig.from_config(config or {}))
    else:
        policy = policy_class(buffer_size=buffer_size)

    logger.info(f"Navigation policy: {policy.name}")
    return policy


__all__ = [
    'AVAILABLE_POLICIES',
    'DecisionRule',
    'NavigationDecision',
    'NavigationPolicy',
    'create_policy',
]
