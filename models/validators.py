"""
Utility functions for data validation and sanitization using Pydantic models
"""
from typing import Dict, Any, Type, TypeVar, Union, List
from pydantic import BaseModel, ValidationError

from .base import UserModel, FormModel, ResponseModel

T = TypeVar('T', bound=BaseModel)


def validate_data(data: Dict[str, Any], model_class: Type[T]) -> tuple[bool, Union[T, List[Dict[str, Any]]]]:
    """
    Validate and sanitize input data using a Pydantic model

    Returns:
        Tuple of (is_valid, result) where result is either the validated
        model instance or the list of validation errors
    """
    try:
        return True, model_class(**data)
    except ValidationError as e:
        return False, e.errors(include_url=False, include_context=False)


def sanitize_for_db(model_instance: BaseModel) -> Dict[str, Any]:
    """Convert a validated model to a plain dict for database insertion (None values dropped)"""
    return model_instance.model_dump(mode="json", exclude_none=True)


def validate_user(user_data: Dict[str, Any]) -> tuple[bool, Union[UserModel, List[Dict[str, Any]]]]:
    """Validate and sanitize user data"""
    return validate_data(user_data, UserModel)


def validate_form(form_data: Dict[str, Any]) -> tuple[bool, Union[FormModel, List[Dict[str, Any]]]]:
    """Validate and sanitize form data"""
    return validate_data(form_data, FormModel)


def validate_response(response_data: Dict[str, Any]) -> tuple[bool, Union[ResponseModel, List[Dict[str, Any]]]]:
    """Validate and sanitize a form response entry"""
    return validate_data(response_data, ResponseModel)
