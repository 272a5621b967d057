import json
from typing import Any, Dict


def strip_code_fences(output: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    if "```json" in output:
        return output.split("```json")[1].split("```")[0].strip()
    if "```" in output:
        return output.split("```")[1].split("```")[0].strip()
    return output.strip()


def loads_object(raw: str) -> Dict[str, Any]:
    """
    Parse model output that should be a JSON object.

    Raises:
        ValueError: not JSON, or JSON that is not an object
    """
    data = json.loads(strip_code_fences(raw or ""))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
