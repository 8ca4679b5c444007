from shapes.models import Circle, Square, Triangle

SCENE = [Circle(radius=1.0), Square(side=2.0), Triangle(base=3.0)]
