"""auth/ -- Credentials, session tokens, and the session cookie for AuthGate.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or admission/.
api/ and admission/ import from auth/, not the other way around.
"""
