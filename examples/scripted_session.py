"""
Example driving a reference session with scripted keys.

This example shows how to:
- Step forward and backward through labels around the cursor
- Watch the status text the session shows at each step
- Keep the reference or jump to the label instead
"""

from refcycle import Direction, RecordingSink, ReferenceSession, TextDocument

SOURCE = r"""\section{Method}\label{sec:method}
We follow the setup of .
\begin{equation}
  E = mc^2 \label{eq:energy}
\end{equation}
% \label{eq:draft}
\begin{figure}
  \caption{Results}\label{fig:results}
\end{figure}
"""


def main():
    """Demonstrate accepting and navigating."""
    print("=" * 60)
    print("Scripted reference session")
    print("=" * 60)

    # Example 1: two steps forward, then keep the reference
    doc = TextDocument(SOURCE, cursor=SOURCE.index(" ."))
    sink = RecordingSink()
    result = ReferenceSession(doc, sink=sink).run(
        direction=Direction.FORWARD, keys=["C-s", "RET"]
    )
    print("\n1. Forward twice, then accept:")
    for message in sink.messages:
        print(f"   {message.splitlines()[0]}")
    print(f"   {result}")
    print(f"   Line 2 is now: {doc.text.splitlines()[1]}")

    # Example 2: look backward, then go to the label instead of inserting
    doc = TextDocument(SOURCE, cursor=SOURCE.index(" ."))
    result = ReferenceSession(doc).run(direction=Direction.BACKWARD, keys=["C-o"])
    line, column = doc.line_column(result.cursor)
    print("\n2. Backward, then go to label:")
    print(f"   {result}")
    print(f"   Cursor at {line}:{column}; document unchanged: {doc.text == SOURCE}")


if __name__ == "__main__":
    main()
