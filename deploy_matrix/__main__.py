from deploy_matrix.interfaces.cli import cli

if __name__ == "__main__":  # pragma: no cover - module entry point
    cli()
