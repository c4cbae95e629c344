VS_QUAD = """
#version 330
in vec2 in_vert;
out vec2 uv;
void main(){ gl_Position = vec4(in_vert,0.0,1.0); uv = (in_vert + 1.0)*0.5; }
"""

# Frames are uploaded top row first, so v is flipped here instead of on the CPU
FS_FRAME = """
#version 330
in vec2 uv; out vec4 fragColor;
uniform sampler2D frame;
void main(){
    vec3 bgr = texture(frame, vec2(uv.x, 1.0 - uv.y)).rgb;
    fragColor = vec4(bgr.bgr, 1.0);
}
"""
