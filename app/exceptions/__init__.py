"""Custom exceptions for the menu catalog application."""

class CatalogError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['error'] = type(self).__name__
        return rv

class BusinessLogicError(CatalogError):
    """Exception raised for business logic violations and invalid input."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(CatalogError):
    """Exception raised when a resource is missing or belongs to another tenant."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class LineNotFoundError(NotFoundError):
    """Raised when one or more menu lines do not belong to the given menu."""
    def __init__(self, message="Menu line not found", line_ids=None):
        payload = {'line_ids': list(line_ids)} if line_ids else None
        super().__init__(message, payload)

class InvalidParentError(BusinessLogicError):
    """Raised when a parent line is not a section line of the same menu."""
    def __init__(self, message="Parent line not found or is not a section", payload=None):
        super().__init__(message, 400, payload)

class MenuNotEditableError(BusinessLogicError):
    """Raised when a structural change is attempted on a published menu."""
    def __init__(self, menu_code=None):
        message = "Cannot change the structure of a published menu. Create a new draft first."
        if menu_code:
            message = f"Menu '{menu_code}' is published: {message}"
        super().__init__(message, status_code=409)

class MenuNotPublishedError(BusinessLogicError):
    """Raised when a menu that is not published is activated at a location."""
    def __init__(self, menu_code=None):
        message = "Menu is not published. Publish the menu before activating."
        if menu_code:
            message = f"Menu '{menu_code}' is not published. Publish the menu before activating."
        super().__init__(message, status_code=409)

class ConflictError(CatalogError):
    """Raised on duplicates and lost races that the caller may retry."""
    def __init__(self, message="Conflicting update, please retry", payload=None):
        super().__init__(message, 409, payload)

class UnauthorizedError(CatalogError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)
