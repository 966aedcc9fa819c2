import socket


def serve(port):
    sock = socket.socket()
    sock.bind(("0.0.0.0", port))
    sock.listen()
    return sock
