from .tokens import (
    CognitoTokenVerifier,
    InvalidAccessTokenError,
    InvalidSessionError,
    compute_session_signature,
    parse_session_token,
)
