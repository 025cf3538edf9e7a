"""Fruit MCP server demonstration.

Registers a ``get_fruit`` prompt and a ``get_fruit`` tool and serves them
over SSE at ``/sse``.

Run it:
```bash
compasse serve examples/fruit_server.py
# or
python examples/fruit_server.py
```

Then, in another terminal:
```bash
curl -N http://localhost:8000/sse
# : connected
#
# event: endpoint
# data: http://localhost:8000/sse?clientId=<id>

curl -X POST "http://localhost:8000/sse?clientId=<id>" \
     -d '{"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": "get_fruit"}}'
```
"""

import asyncio

from pydantic import BaseModel, Field

from compasse import CompasseServer, ToolResponse

server = CompasseServer()


class GetFruitPromptRequest(BaseModel):
    """Prompt arguments."""

    color: str | None = Field(None, description="Preferred fruit color")


class GetFruitPromptResponse(BaseModel):
    fruit: str


@server.prompt(name="get_fruit", description="Gets a fruit.")
def get_fruit_prompt(request: GetFruitPromptRequest) -> GetFruitPromptResponse:
    if request.color == "green":
        return GetFruitPromptResponse(fruit="Lime")
    return GetFruitPromptResponse(fruit="Mango")


class GetFruitToolRequest(BaseModel):
    pass


@server.tool(name="get_fruit", description="Gets a fruit.")
async def get_fruit_tool(request: GetFruitToolRequest) -> ToolResponse:  # noqa: ARG001
    await asyncio.sleep(0)
    return ToolResponse.text("🥝")


if __name__ == "__main__":
    server.run()
