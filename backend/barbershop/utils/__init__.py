from .json_utils import dumps
from .errors import error_response
