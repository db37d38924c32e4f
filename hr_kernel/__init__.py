"""
HR Kernel

Time, leave and approval rules for a single-organisation HR system:
- Time entries with break sequencing and overtime categories
- Employee status, leave requests and leave balances
- Leave and overtime policies with eligibility and usage rules
- Annual leave plans with a multi-stage approval workflow
"""

__version__ = "0.1.0"
