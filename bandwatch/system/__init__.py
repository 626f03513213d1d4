"""Operating-system access: interfaces, packet capture, open sockets and terminal input."""