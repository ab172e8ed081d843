#!/usr/bin/env python3
"""Interactive chat CLI for testing the agent service."""

import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


class ChatCLI:
    """Interactive chat interface for the agent service."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.session_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=120.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]agentloop - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the agent.\n"
                "Commands: /help, /tools, /clear, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]✅ Connected to agent service[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")

                if user_input.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif user_input.lower() == "/help":
                    self._show_help()
                    continue
                elif user_input.lower() == "/tools":
                    self._show_tools()
                    continue
                elif user_input.lower() == "/clear":
                    self._reset_session()
                    continue
                elif user_input.strip() == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_response(response)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> dict | None:
        """Send message to the agent service."""
        try:
            payload = {"message": message}
            if self.session_id:
                payload["session_id"] = self.session_id

            self.console.print("[dim]💭 Thinking...[/dim]", end="")
            response = self.client.post(f"{self.base_url}/conversation", json=payload)
            self.console.print("\r" + " " * 20 + "\r", end="\n")

            if response.status_code == 200:
                data = response.json()
                self.session_id = data.get("session_id")
                return data
            if response.status_code == 404:
                # Session expired on the server
                self.session_id = None
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
            return None

        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

    def _reset_session(self) -> None:
        """Clear the conversation history on the server."""
        if not self.session_id:
            self.console.print("[yellow]🔄 Nothing to clear[/yellow]")
            return
        try:
            response = self.client.post(f"{self.base_url}/conversation/{self.session_id}/reset")
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return
        if response.status_code == 404:
            self.session_id = None
        self.console.print("[yellow]🔄 Conversation cleared[/yellow]")

    def _show_tools(self) -> None:
        """List the tools the agent can call."""
        try:
            response = self.client.get(f"{self.base_url}/tools")
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Could not list tools: {e}[/red]")
            return

        table = Table(title="Available Tools")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        for item in response.json()["tools"]:
            table.add_row(item["name"], item.get("description") or "")
        self.console.print(table)

    def _display_response(self, response: dict) -> None:
        """Display agent response with nice formatting."""
        assistant_text = response.get("response", "No response")
        iteration = response.get("iteration", 0)

        self.console.print(
            Panel(
                Markdown(assistant_text),
                title="[bold green]🤖 Agent[/bold green]",
                subtitle=f"[dim]answered on iteration {iteration + 1}[/dim]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /tools - List the tools the agent can call
• /clear - Clear the conversation history
• /quit or /exit - Exit the chat

[bold]Tips:[/bold]
• The agent remembers earlier messages until you /clear
• Tool names are prefixed with the index of the provider that serves them
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
