"""Data models for kit-composer.

Import from submodules:
- catalog: Catalog, KitRequest
- kit: Kit, FileEntry, OwnershipPolicy, SoftDependency, VerificationCriterion
- plan: ApplyPlan, ApplyReport, KitOutcome, PlanState
- tree: WorkingTree, TrackedFile
"""
