from .main import main

main(prog_name="kube-tail")
