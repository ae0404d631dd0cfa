"""Operations for kit-composer.

Import from submodules:
- graph: DependencyGraph, build_graph, validate_catalog
- resolver: resolve_plan
- template: PlanValues, render_kit, substitute
- merge: merge_kit
- verify: VerifyOptions, verify_kit
- apply: run_plan
"""
