"""
Task engine.

Components:
- task_models.py: hook bundles, helpers, outcomes, snapshots, NEVER_EXECUTED
- task.py: one guarded unit of work and its status fields on the model
- machine.py: polling loop that launches runnable tasks against the shared model
- task_api.py: small high-level helpers used by callers
"""
