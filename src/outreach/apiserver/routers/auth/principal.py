from pydantic import BaseModel


class Principal(BaseModel):
    """Describes a user within the API server.

    The fields on this type are taken from the verified session token issued by the identity provider.
    """

    email: str  # user email; may be empty when the provider does not include it in session tokens
    iss: str  # issuer
    sub: str  # subject identifier
