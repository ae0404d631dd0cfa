"""kit-composer: resolve, order and merge kit manifests into a generated project.

For programmatic use, import from the public API:
    from kit_composer.api import apply_kits, load_kits, plan_kits

Import from submodules:
- version: __version__
- api: Public API (apply_kits, plan_kits, load_kits)
"""

from kit_composer.version import __version__ as __version__
