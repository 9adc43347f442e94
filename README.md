# mcpstdio

A standard-I/O transport for a JSON-RPC message server such as a Model
Context Protocol (MCP) server. Each message arrives as one line of JSON on
the input stream; each response, and every notification queued for the
client, is written back as one line of compact JSON on the output stream.

Standard I/O has exactly one client, so the transport keeps a single
session for the lifetime of the connection.

## The server it drives

`StdioServer` does not handle requests itself. It wraps an object that
provides these four methods (described by the `SessionServer` protocol in
`mcpstdio.stdio`):

- `register_session(context, session)`
- `unregister_session(context, session_id)`
- `with_context(context, session)`, returning the context used for requests
- `handle_message(context, message)`, returning a response or `None`

Contexts are plain dictionaries.

## What it provides

All names live in `mcpstdio.stdio`.

- `StdioServer(server, error_logger=None, context_func=None)` wraps the
  server. `error_logger` is a `logging.Logger` that receives errors met
  while reading input, handling a message or writing a notification; it
  defaults to the `mcpstdio.stdio` logger. `context_func`, if given, is
  called once per `listen` call with the connection's context and returns
  the context passed to every request, for instance to carry settings read
  from environment variables into request handlers.
- `StdioServer.listen(stdin, stdout, context=None)` registers the session
  (raising `SessionRegistrationError` if the server refuses it), reads lines
  until end of input or until `stop()` is called, and writes every response
  and notification to `stdout`. End of input, including a last line with no
  newline, is a normal shutdown. A failure to read input or to handle a
  message is logged and raised. The session is unregistered on the way out.
  Text and binary streams are both accepted.
- `StdioServer.process_message(context, line, writer)` handles a single
  line. A line that is not valid JSON is answered with a JSON-RPC error
  response with code `-32700` and message `"Parse error"`. When the server
  returns `None` (as for notifications from the client), nothing is written.
- `StdioServer.write_message(message, writer)` serialises one message as
  compact JSON (dataclasses are converted to dictionaries), writes it
  followed by a newline and flushes the writer.
- `StdioServer.stop()` makes a running `listen` call return.
- `StdioServer.session` is the connection's `StdioSession`: its
  `session_id` is `"stdio"`, `initialize()` marks it as initialised (see the
  `initialized` property), and `send(notification)` queues a notification to
  be written to the client. The queue holds up to 100 notifications; `send`
  blocks while it is full.
- `serve_stdio(server, error_logger=None, context_func=None)` listens on the
  process's own stdin and stdout. When called from the main thread, SIGINT
  and SIGTERM stop it cleanly and the previous signal handlers are restored
  afterwards.

## Example

```python
import logging
import os

from mcpstdio.stdio import serve_stdio


def add_settings(context):
    context = dict(context)
    context["workspace"] = os.environ.get("WORKSPACE", "")
    return context


serve_stdio(
    my_server,
    error_logger=logging.getLogger("myapp.stdio"),
    context_func=add_settings,
)
```

Here `my_server` is any object with the four methods listed above.

## What it does not do

This package is only the transport. It has no MCP server of its own: no
tool, prompt or resource registry, no request dispatch and no protocol
handshake. It installs no command; call `serve_stdio` from your own program.

## Running the tests

The test suite uses pytest, available through the `test` extra:

    pip install -e ".[test]"
    pytest