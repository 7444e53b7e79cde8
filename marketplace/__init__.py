"""
Opportunity Marketplace
Connects students with internship and research opportunities.

Architecture:
- Relational store: accounts, profiles, opportunities, applications, notifications
- Admission control: daily limit, one application per opportunity, applicant caps
- File storage: portfolios and verification documents
"""

__version__ = "1.0.0"
