def resolve_reference(ref) -> str | None:
    """Return the id part of a relative reference such as ``"Patient/123"``.

    The resource type prefix is not checked. Anything that is not a string
    containing ``/`` resolves to ``None``.
    """
    if not isinstance(ref, str) or "/" not in ref:
        return None
    return ref.split("/", 1)[1] or None


def reference_id(obj) -> str | None:
    # obj is a FHIR Reference, i.e. {"reference": "Type/id", ...}
    if not isinstance(obj, dict):
        return None
    return resolve_reference(obj.get("reference"))
