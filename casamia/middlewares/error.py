import logging
from aiohttp import web
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from casamia.errors import ServiceError
from casamia.utils.responses import error_response


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ServiceError as e:
        return error_response(str(e), status=e.status)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return error_response("Validation failed", status=400, errors=errors)
    except IntegrityError as e:
        logging.warning(f"Integrity error on {request.method} {request.path}: {e.orig}")
        return error_response("Request conflicts with existing data", status=409)
    except ValueError as e:
        # Malformed JSON bodies and bad query parameters
        return error_response(str(e) or "Invalid request", status=400)
    except Exception as e:
        logging.exception(f"Unhandled exception on {request.method} {request.path}: {e}")
        return error_response("Internal server error", status=500)
