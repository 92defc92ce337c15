from gridlock import create_app, socketio

app = create_app()
 
if __name__ == '__main__':
    # Use SocketIO server so clients can subscribe to match snapshots
    socketio.run(app, debug=True)
