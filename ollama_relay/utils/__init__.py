from .format import describe_exception, pretty_object

__all__ = ["describe_exception", "pretty_object"]
