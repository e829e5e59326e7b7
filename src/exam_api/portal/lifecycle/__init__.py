"""Examination request state machine and access policy."""

from exam_api.portal.lifecycle.manager import RequestLifecycleManager

__all__ = ["RequestLifecycleManager"]
