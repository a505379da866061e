# flowcheck/structural/schema.py
# Shape of individual node entries. Field presence of `nodes`/`connections`,
# connection slots and typeVersion values are checked by the structural rules,
# which report them with more precise messages.
NODE_SCHEMA = {
    "type": "object",
    "required": ["name", "type"],
    "properties": {
        "id": {
            "type": ["string", "number"]
        },
        "name": {
            "type": "string",
            "minLength": 1
        },
        "type": {
            "type": "string",
            "minLength": 1
        },
        "parameters": {
            "type": "object"
        },
        "disabled": {
            "type": "boolean"
        },
        "credentials": {
            "type": "object",
            "additionalProperties": {
                "type": ["object", "string"]
            }
        },
        # layout information in exports, [x, y]
        "position": {
            "type": "array",
            "items": {"type": "number"},
            "minItems": 2,
            "maxItems": 2
        }
    },
    "additionalProperties": True
}

# top-level fields not covered by the nodes/connections rules
WORKFLOW_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "settings": {"type": "object"},
        "active": {"type": "boolean"},
        "tags": {"type": "array"}
    },
    "additionalProperties": True
}
