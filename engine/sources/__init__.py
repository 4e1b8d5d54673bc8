"""事件源：把“下一批 K 线从哪里来”从引擎中剥离。"""
