"""Authentication core.

Learn: Two token universes live side by side and are never mixed:
1. Local JWTs — issued by TokenService after password login,
   verified with our own secret (LocalAuthenticator)
2. Provider sessions — issued by the hosted identity provider after
   Google sign-in or provider login, verified by asking the provider
   (FederatedAuthenticator)

Usernames (normalization + allocation) and credential extraction
are shared by both paths.
"""
