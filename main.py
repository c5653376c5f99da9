import sys

from config import ClientConfig
from docker_client import DockerClient
from log_viewer import LogViewerApp
from logger import configure_logging, log

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: main.py <container>", file=sys.stderr)
        sys.exit(2)

    # Clear or create log.txt on start
    open("log.txt", "w").close()
    configure_logging(filename="log.txt")

    with DockerClient(ClientConfig.from_env()) as client:
        log.info("Following logs of %s via %s", sys.argv[1], client.config.base_url)
        LogViewerApp(sys.argv[1], client=client).run()
