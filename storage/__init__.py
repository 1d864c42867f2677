from storage.credential_store import CredentialStore

__all__ = ["CredentialStore"]
