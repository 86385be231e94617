"""
Event interpretation package.

Import components directly from their modules, for example:
- `caltrigger.events.models`
- `caltrigger.events.parser`
- `caltrigger.events.exclusions`
- `caltrigger.events.planner`
"""

__all__: list[str] = []
