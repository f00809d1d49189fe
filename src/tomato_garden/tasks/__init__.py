"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RewardToken, DebtObligation, ...)
- task_store.py: SQLite database, transactions and the task repository
- ledger_store.py: reward (tomato) and debt (punishment) ledgers
- task_engine.py: reconciliation rules for create/update/complete/delete
- task_sweeper.py: periodic expiry sweep that turns missed deadlines into debts
"""
