"""Authentication Middleware"""
import logging
import requests
from jose import JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer
from pydantic import ValidationError

from app.config import settings
from app.auth.models import Actor, UserType
from app.auth.jwt_verifier import JWTVerifier
from app.auth.permissions_manager import PermissionsManager

logger = logging.getLogger(__name__)

# Initialize components
security = HTTPBearer()
jwt_verifier = JWTVerifier(
    keycloak_url=settings.keycloak_url,
    realm=settings.keycloak_realm,
    algorithm=settings.jwt_algorithm,
)
permissions_manager = PermissionsManager(settings.permissions_file)


def permission_key(user_type: str, role: str | None) -> str:
    """Patients share one permission set; operators are keyed by role"""
    if user_type == UserType.PATIENT.value:
        return UserType.PATIENT.value
    return role or ""


def actor_from_claims(payload: dict) -> Actor:
    """
    Build the actor from verified token claims.

    Expected JWT claims:
    - sub: user id
    - userType: PATIENT | OPERATOR
    - role: ADMIN | SUPPORT | BASIC (operators only)
    - given_name / family_name: used in notification text
    """
    user_type = payload.get("userType")
    role = payload.get("role") if user_type == UserType.OPERATOR.value else None
    permissions = permissions_manager.get_permissions_for_roles([permission_key(user_type, role)])
    return Actor(
        sub=payload["sub"],
        user_type=user_type,
        role=role,
        first_name=payload.get("given_name"),
        last_name=payload.get("family_name"),
        permissions=permissions,
    )


def authenticate(token: str) -> Actor:
    """Verify a raw bearer token and return the actor: 401 for a bad token, 503 if the keys are unreachable"""
    try:
        payload = jwt_verifier.verify_and_decode(token)
        return actor_from_claims(payload)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}"
        )
    except (KeyError, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claims: {str(e)}"
        )
    except requests.RequestException as e:
        logger.error(f"Could not fetch signing keys: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable"
        )


async def verify_token(credentials = Depends(security)) -> Actor:
    """Verify JWT token from Keycloak and extract the calling actor."""
    return authenticate(credentials.credentials)


def check_permission(actor: Actor, required_permission: str):
    """
    Check if the actor's role grants a route permission.

    Raises:
        HTTPException: If user lacks required permission
    """
    if required_permission not in actor.permissions:
        logger.info(f"Actor {actor.user_id} denied route permission {required_permission}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing required permission: {required_permission}"
        )
