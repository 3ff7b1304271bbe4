from sqlalchemy.exc import IntegrityError, DBAPIError
from core.errors import ValidationError, TransientCollaboratorError

# Driver level failures that mean the store could not be reached or went away
TRANSIENT_DB_ERRORS = (DBAPIError, OSError, ConnectionError)


async def safe_commit(session, client_error_message: str = "Invalid request", server_error_message: str = "Ledger store unavailable"):
    try:
        await session.commit()
    except IntegrityError as e:
        try:
            await session.rollback()
        finally:
            pass
        raise ValidationError(client_error_message) from e
    except TRANSIENT_DB_ERRORS as e:
        try:
            await session.rollback()
        finally:
            pass
        raise TransientCollaboratorError(server_error_message) from e
