"""
catalog/errors.py -- Client-visible catalog failures.

Same shape as auth/errors.py (code, message, status_code) so api/main.py can
render both families through the one ErrorResponse envelope.
"""


class CatalogError(Exception):
    code = "catalog_error"
    message = "Catalog operation failed."
    status_code = 400

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    @property
    def detail(self):
        return None


class ProductNotFound(CatalogError):
    code = "not_found"
    message = "Product not found."
    status_code = 404
