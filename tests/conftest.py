"""Test fixtures and configuration."""

import tempfile
from pathlib import Path
from typing import Any

import pytest
import yaml

from overlay_resolver.documents import Document


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_yaml():
    """Write a YAML file, creating parent directories as needed."""

    def _write(directory: Path, filename: str, content: Any) -> Path:
        path = directory / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(content, sort_keys=False))
        return path

    return _write


@pytest.fixture
def make_document():
    """Build an in-memory document the way the collector would."""

    def _make(relative_path: str, data: Any) -> Document:
        return Document.from_data(relative_path, data)

    return _make


@pytest.fixture
def pizza_spec():
    """A small OpenAPI document with one schema."""
    return {
        "openapi": "3.1.0",
        "info": {"title": "Pizza API", "version": "1.0.0", "x-api-id": "pizza-api"},
        "paths": {},
        "components": {
            "schemas": {
                "Pizza": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "description": {"type": "string"},
                        "status": {"type": "string"},
                    },
                }
            }
        },
    }


@pytest.fixture
def tasks_spec():
    """An OpenAPI document with a collection and a single-resource path."""
    return {
        "openapi": "3.1.0",
        "info": {"title": "Tasks API", "version": "1.0.0"},
        "paths": {
            "/tasks": {
                "get": {
                    "summary": "List tasks",
                    "operationId": "listTasks",
                    "tags": ["Tasks"],
                    "responses": {"200": {"description": "OK"}},
                }
            },
            "/tasks/{taskId}": {
                "parameters": [{"$ref": "#/components/parameters/TaskIdParam"}],
                "get": {
                    "summary": "Get task",
                    "operationId": "getTask",
                    "tags": ["Tasks"],
                    "responses": {
                        "200": {
                            "description": "OK",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/Task"}
                                }
                            },
                        },
                        "404": {"$ref": "./components/responses.yaml#/NotFound"},
                    },
                },
            },
        },
        "components": {
            "parameters": {
                "TaskIdParam": {
                    "name": "taskId",
                    "in": "path",
                    "required": True,
                    "schema": {"type": "string"},
                }
            },
            "schemas": {
                "Task": {
                    "type": "object",
                    "properties": {"id": {"type": "string"}, "status": {"type": "string"}},
                }
            },
        },
    }


@pytest.fixture
def task_state_machine():
    """A state machine contract for the Task object."""
    return {
        "$schema": "./schemas/state-machine-schema.yaml",
        "domain": "workflow",
        "object": "Task",
        "apiSpec": "tasks.yaml",
        "states": {"open": {}, "claimed": {}, "done": {}},
        "initialState": "open",
        "transitions": [
            {"trigger": "claim", "from": "open", "to": "claimed"},
            {"trigger": "complete", "from": "claimed", "to": "done"},
        ],
        "requestBodies": {
            "claim": {},
            "complete": {
                "type": "object",
                "properties": {"notes": {"type": "string"}},
            },
        },
    }
