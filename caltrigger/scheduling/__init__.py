"""
Scheduling package.

Import components directly from their modules, for example:
- `caltrigger.scheduling.engine`
- `caltrigger.scheduling.triggers`
- `caltrigger.scheduling.jobs`
- `caltrigger.scheduling.dispatch`
- `caltrigger.scheduling.database`
"""

__all__: list[str] = []
