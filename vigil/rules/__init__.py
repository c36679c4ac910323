"""
Rule lifecycle: validation, persistence, cache and metric index.

`RuleService` is the entry point; everything else is a collaborator
injected into it.
"""
