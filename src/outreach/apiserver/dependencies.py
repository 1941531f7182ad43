from outreach.apiserver import database
from outreach.credentials.credentialservice import CredentialService, get_credential_service


async def outreach_db_session():
    """Returns a database connection to the application database."""
    async with database.async_session() as session:
        yield session


def credential_service_dependency() -> CredentialService:
    """Returns the process-wide CredentialService; to be overridden by tests."""
    return get_credential_service()
