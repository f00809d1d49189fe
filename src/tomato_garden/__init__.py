"""
Tomato Garden: a task tracker that rewards finishing on time.

Finishing a task earns a tomato; missing a deadline plants a punishment that
has to be paid off by the next on-time completion before tomatoes flow again.
"""

__version__ = "0.1.0"
