"""
Project runtime package.

Import concrete functionality from explicit submodules:
- `caltrigger.runtime.config` for configuration dataclasses
- `caltrigger.runtime.bootstrap` for startup helpers
- `caltrigger.runtime.context` for runtime context definitions
- `caltrigger.runtime.state` for global context accessors
"""

__all__: list[str] = []
