"""Portal accounts — user-account backend.

Registration, password login, email verification, password recovery,
profile management and Google sign-in, reconciled between the local
user table and a hosted identity provider.
"""

__version__ = "0.1.0"
