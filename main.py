"""Development entry point: `python main.py <command>`.

The container image calls `python -m webui_boot.cli` through the generated
start-up script; this shim only exists for running from a checkout.
"""

from webui_boot.cli import main

if __name__ == "__main__":
	main()
