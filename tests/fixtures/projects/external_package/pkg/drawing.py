from pkg.shapes import Segment

SEGMENT = Segment(label="diagonal")
